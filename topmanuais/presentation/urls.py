"""
Define as rotas de API REST da loja: carrinho, etapas do checkout,
página de download e consulta administrativa de pedidos.
"""
from django.urls import path
from . import views


urlpatterns = [
    # ====================================================================
    # 1. ROTAS DO CARRINHO
    # ====================================================================
    path('api/carrinho/', views.CarrinhoAPIView.as_view(), name='carrinho'),
    path('api/carrinho/itens/<str:item_id>/', views.ItemCarrinhoAPIView.as_view(), name='item_carrinho'),

    # ====================================================================
    # 2. ROTAS DO CHECKOUT
    # ====================================================================
    path('api/checkout/', views.CheckoutAPIView.as_view(), name='checkout'),
    path('api/checkout/cliente/', views.CheckoutClienteAPIView.as_view(), name='checkout_cliente'),
    path('api/checkout/pagamento/', views.CheckoutPagamentoAPIView.as_view(), name='checkout_pagamento'),
    path('api/checkout/voltar/', views.CheckoutVoltarAPIView.as_view(), name='checkout_voltar'),
    path('api/checkout/cancelar/', views.CheckoutCancelarAPIView.as_view(), name='checkout_cancelar'),
    path('api/checkout/confirmar/', views.CheckoutConfirmarAPIView.as_view(), name='checkout_confirmar'),
    path('api/metodos-pagamento/', views.MetodosPagamentoAPIView.as_view(), name='metodos_pagamento'),

    # ====================================================================
    # 3. ROTAS DE DOWNLOAD
    # ====================================================================
    path('api/pedidos/<uuid:pedido_id>/downloads/', views.PedidoDownloadsAPIView.as_view(), name='pedido_downloads'),
    path('api/downloads/<uuid:link_id>/', views.DownloadAPIView.as_view(), name='download'),

    # ====================================================================
    # 4. ROTAS ADMINISTRATIVAS
    # ====================================================================
    path('api/admin/pedidos/', views.AdminPedidosAPIView.as_view(), name='admin_pedidos'),
    path('api/admin/pedidos/<uuid:pedido_id>/', views.AdminPedidoDetalheAPIView.as_view(), name='admin_pedido_detalhe'),
    path('api/admin/pedidos/numero/<str:numero_pedido>/', views.AdminPedidoPorNumeroAPIView.as_view(), name='admin_pedido_por_numero'),
]
