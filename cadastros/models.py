from decimal import Decimal, ROUND_HALF_UP

from django.db import models
from django.db.models import Q


class Mapa(models.Model):
    class TipoImagem(models.TextChoices):
        IMAGEM = 'image', 'Imagem'
        PDF = 'pdf', 'PDF'

    nome = models.CharField(max_length=120)
    descricao = models.TextField(blank=True)
    # referência ao raster/vetor já armazenado (upload fica fora daqui)
    imagem_url = models.CharField(max_length=500, blank=True)
    tipo_imagem = models.CharField(max_length=5, choices=TipoImagem.choices, default=TipoImagem.IMAGEM)
    largura = models.PositiveIntegerField(default=0)
    altura = models.PositiveIntegerField(default=0)

    criado_em = models.DateTimeField(auto_now_add=True)
    atualizado_em = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['nome', 'id']

    def __str__(self):
        return self.nome


class Quadra(models.Model):
    mapa = models.ForeignKey(Mapa, on_delete=models.CASCADE, related_name='quadras')
    nome = models.CharField(max_length=60)
    descricao = models.TextField(blank=True)

    criado_em = models.DateTimeField(auto_now_add=True)
    atualizado_em = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['nome', 'id']
        constraints = [
            models.UniqueConstraint(fields=['mapa', 'nome'], name='quadra_nome_unico_no_mapa'),
        ]

    def __str__(self):
        return f"{self.mapa} Q{self.nome}"


class Lote(models.Model):
    class Status(models.TextChoices):
        DISPONIVEL = 'DISP', 'Disponível'
        RESERVADO = 'RESV', 'Reservado'
        VENDIDO = 'VEND', 'Vendido'
        BLOQUEADO = 'BLOQ', 'Bloqueado'

    # status que só existem enquanto há uma reserva segurando o lote
    STATUS_EM_RESERVA = (Status.RESERVADO, Status.VENDIDO)

    mapa = models.ForeignKey(Mapa, on_delete=models.CASCADE, related_name='lotes')
    quadra = models.ForeignKey(
        Quadra, on_delete=models.CASCADE, null=True, blank=True, related_name='lotes'
    )
    numero = models.CharField(max_length=20)
    status = models.CharField(max_length=4, choices=Status.choices, default=Status.DISPONIVEL)
    area_m2 = models.DecimalField(max_digits=10, decimal_places=2)
    preco = models.DecimalField(max_digits=12, decimal_places=2)
    descricao = models.TextField(blank=True)
    caracteristicas = models.JSONField(default=list, blank=True)
    # polígono {"points": [{"x":..,"y":..}, ...]} vindo do desenho do mapa
    area = models.JSONField(null=True, blank=True)

    # reserva que segura o lote (só enquanto RESV/VEND)
    reserva = models.ForeignKey(
        'vendas.Reserva', on_delete=models.PROTECT, null=True, blank=True,
        related_name='lotes_em_posse',
    )

    criado_em = models.DateTimeField(auto_now_add=True)
    atualizado_em = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['numero', 'id']
        constraints = [
            models.UniqueConstraint(fields=['mapa', 'numero'], name='lote_numero_unico_no_mapa'),
            models.CheckConstraint(
                condition=(
                    Q(status__in=['RESV', 'VEND'], reserva__isnull=False)
                    | (~Q(status__in=['RESV', 'VEND']) & Q(reserva__isnull=True))
                ),
                name='lote_status_coerente_com_reserva',
            ),
        ]
        indexes = [
            models.Index(fields=['mapa', 'status'], name='lote_mapa_status_idx'),
        ]

    def __str__(self):
        if self.quadra_id:
            return f"{self.mapa} Q{self.quadra.nome} L{self.numero}"
        return f"{self.mapa} L{self.numero}"

    @property
    def preco_m2(self) -> Decimal:
        if not self.area_m2:
            return Decimal("0.00")
        return (Decimal(self.preco) / Decimal(self.area_m2)).quantize(
            Decimal("0.01"), rounding=ROUND_HALF_UP
        )

    @property
    def em_reserva(self) -> bool:
        return self.status in self.STATUS_EM_RESERVA
