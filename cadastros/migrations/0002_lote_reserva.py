import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('cadastros', '0001_initial'),
        ('vendas', '0001_initial'),
    ]

    operations = [
        migrations.AddField(
            model_name='lote',
            name='reserva',
            field=models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='lotes_em_posse', to='vendas.reserva'),
        ),
        migrations.AddConstraint(
            model_name='lote',
            constraint=models.CheckConstraint(
                condition=(
                    models.Q(status__in=['RESV', 'VEND'], reserva__isnull=False)
                    | (~models.Q(status__in=['RESV', 'VEND']) & models.Q(reserva__isnull=True))
                ),
                name='lote_status_coerente_com_reserva',
            ),
        ),
    ]
