# topmanuais/urls.py
"""
Configuração principal de URL do projeto TopManuais.

Este arquivo centraliza o roteamento, incluindo:
1. Rotas da API da loja (topmanuais.presentation)
2. Rotas do Admin (Django Admin)
3. Rotas de Autenticação JWT
4. Rotas da Documentação da API (Swagger/Redoc)
"""
from django.contrib import admin
from django.urls import path, include
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView, SpectacularRedocView
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView


urlpatterns = [
    # Inclui as URLs da aplicação de apresentação (a loja)
    path('', include('topmanuais.presentation.urls')),

    # URL para o painel de administração padrão do Django
    path('admin/', admin.site.urls),

    # ====================================================================
    # ROTAS DE AUTENTICAÇÃO (JWT) PARA A API ADMINISTRATIVA
    # ====================================================================
    path('api/token/', TokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('api/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),

    # ====================================================================
    # ROTAS DE DOCUMENTAÇÃO DA API (DRF SPECTACULAR)
    # ====================================================================
    # 1. Rota para o arquivo Schema YAML (gerado automaticamente)
    path('api/schema/', SpectacularAPIView.as_view(), name='schema'),

    # 2. Rota para a interface de usuário do Swagger (visualização interativa)
    path('api/docs/swagger/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),

    # Opcional: Rota para a interface Redoc
    path('api/docs/redoc/', SpectacularRedocView.as_view(url_name='schema'), name='redoc'),
]
