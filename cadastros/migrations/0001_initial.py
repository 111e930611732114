import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Mapa',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('nome', models.CharField(max_length=120)),
                ('descricao', models.TextField(blank=True)),
                ('imagem_url', models.CharField(blank=True, max_length=500)),
                ('tipo_imagem', models.CharField(choices=[('image', 'Imagem'), ('pdf', 'PDF')], default='image', max_length=5)),
                ('largura', models.PositiveIntegerField(default=0)),
                ('altura', models.PositiveIntegerField(default=0)),
                ('criado_em', models.DateTimeField(auto_now_add=True)),
                ('atualizado_em', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['nome', 'id'],
            },
        ),
        migrations.CreateModel(
            name='Quadra',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('nome', models.CharField(max_length=60)),
                ('descricao', models.TextField(blank=True)),
                ('criado_em', models.DateTimeField(auto_now_add=True)),
                ('atualizado_em', models.DateTimeField(auto_now=True)),
                ('mapa', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='quadras', to='cadastros.mapa')),
            ],
            options={
                'ordering': ['nome', 'id'],
                'constraints': [models.UniqueConstraint(fields=('mapa', 'nome'), name='quadra_nome_unico_no_mapa')],
            },
        ),
        migrations.CreateModel(
            name='Lote',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('numero', models.CharField(max_length=20)),
                ('status', models.CharField(choices=[('DISP', 'Disponível'), ('RESV', 'Reservado'), ('VEND', 'Vendido'), ('BLOQ', 'Bloqueado')], default='DISP', max_length=4)),
                ('area_m2', models.DecimalField(decimal_places=2, max_digits=10)),
                ('preco', models.DecimalField(decimal_places=2, max_digits=12)),
                ('descricao', models.TextField(blank=True)),
                ('caracteristicas', models.JSONField(blank=True, default=list)),
                ('area', models.JSONField(blank=True, null=True)),
                ('criado_em', models.DateTimeField(auto_now_add=True)),
                ('atualizado_em', models.DateTimeField(auto_now=True)),
                ('mapa', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='lotes', to='cadastros.mapa')),
                ('quadra', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='lotes', to='cadastros.quadra')),
            ],
            options={
                'ordering': ['numero', 'id'],
                'indexes': [models.Index(fields=['mapa', 'status'], name='lote_mapa_status_idx')],
                'constraints': [models.UniqueConstraint(fields=('mapa', 'numero'), name='lote_numero_unico_no_mapa')],
            },
        ),
    ]
