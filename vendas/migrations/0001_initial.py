import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('cadastros', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Reserva',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('cliente_nome', models.CharField(max_length=150)),
                ('cliente_email', models.EmailField(max_length=254)),
                ('cliente_telefone', models.CharField(max_length=20)),
                ('cliente_cpf', models.CharField(max_length=14)),
                ('vendedor_nome', models.CharField(blank=True, max_length=150)),
                ('vendedor_email', models.EmailField(blank=True, max_length=254)),
                ('vendedor_telefone', models.CharField(blank=True, max_length=20)),
                ('vendedor_cpf', models.CharField(blank=True, max_length=14)),
                ('forma_pagamento', models.CharField(blank=True, choices=[('PIX', 'Pix'), ('DINHEIRO', 'Dinheiro'), ('CARTAO', 'Cartão'), ('CARNE', 'Carnê'), ('FINANCIAMENTO', 'Financiamento'), ('OUTRO', 'Outro')], default='', max_length=15)),
                ('contrato', models.CharField(blank=True, max_length=50)),
                ('mensagem', models.TextField(blank=True)),
                ('status', models.CharField(choices=[('PEND', 'Pendente'), ('CONC', 'Concluída'), ('CANC', 'Cancelada')], default='PEND', max_length=4)),
                ('criado_em', models.DateTimeField(auto_now_add=True)),
                ('atualizado_em', models.DateTimeField(auto_now=True)),
                ('concluida_em', models.DateTimeField(blank=True, null=True)),
                ('cancelada_em', models.DateTimeField(blank=True, null=True)),
                ('vendedor', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='reservas', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-criado_em', '-id'],
                'indexes': [
                    models.Index(fields=['status'], name='reserva_status_idx'),
                    models.Index(fields=['vendedor', 'status'], name='reserva_vendedor_status_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ReservaLote',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('numero_lote', models.CharField(max_length=20)),
                ('ordem', models.PositiveIntegerField(default=0)),
                ('preco_acordado', models.DecimalField(decimal_places=2, max_digits=12)),
                ('entrada', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('parcelas', models.PositiveIntegerField(blank=True, null=True)),
                ('lote', models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='itens_reserva', to='cadastros.lote')),
                ('reserva', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='itens', to='vendas.reserva')),
            ],
            options={
                'ordering': ['ordem', 'id'],
                'constraints': [models.UniqueConstraint(fields=('reserva', 'lote'), name='lote_unico_na_reserva')],
            },
        ),
    ]
