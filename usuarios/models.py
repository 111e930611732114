from django.conf import settings
from django.db import models


class Papel(models.TextChoices):
    VENDEDOR = "vendedor", "Vendedor"
    ADMIN = "admin", "Administrador"
    DEV = "dev", "Desenvolvedor"


class Perfil(models.Model):
    """Dados do usuário que o auth.User não guarda: papel e identificação do corretor."""
    usuario = models.OneToOneField(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="perfil"
    )
    papel = models.CharField(max_length=10, choices=Papel.choices, default=Papel.VENDEDOR)
    cpf = models.CharField(max_length=14, blank=True)
    telefone = models.CharField(max_length=20, blank=True)
    creci = models.CharField(max_length=20, blank=True)

    def __str__(self):
        return f"{self.usuario} ({self.get_papel_display()})"
