from django.core.management.base import BaseCommand
from django.utils.text import slugify
from topmanuais.catalog.models import Manual
from decimal import Decimal

class Command(BaseCommand):
    help = 'Carrega manuais de exemplo para teste da loja'

    def handle(self, *args, **kwargs):
        self.stdout.write('Criando manuais de exemplo...')

        manuais = [
            ('Manual de Exemplo', 'Manual de serviço genérico para testes da loja.', Decimal('139.90')),
            ('Manual de Serviço Honda CG 160', 'Procedimentos de manutenção e diagramas elétricos.', Decimal('89.90')),
            ('Manual do Proprietário Yamaha Fazer 250', 'Guia completo de uso e revisões periódicas.', Decimal('59.90')),
            ('Manual de Reparação Fiat Uno', 'Motor, câmbio, suspensão e freios passo a passo.', Decimal('129.90')),
        ]

        for titulo, descricao, preco in manuais:
            manual, created = Manual.objects.get_or_create(
                slug=slugify(titulo),
                defaults={
                    'titulo': titulo,
                    'descricao': descricao,
                    'preco': preco,
                }
            )
            if created:
                self.stdout.write(self.style.SUCCESS(f'Criado manual "{manual.titulo}"'))

        self.stdout.write(self.style.SUCCESS('Manuais de exemplo carregados com sucesso!'))
