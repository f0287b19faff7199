"""
URL routing for accounts app.
"""
from django.urls import path
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

# Lazy view imports to avoid AppRegistryNotReady
@csrf_exempt
@require_http_methods(["POST"])
def login_view(request):
    from .auth import login
    return login(request)

@csrf_exempt
@require_http_methods(["POST"])
def register_view(request):
    from .auth import register
    return register(request)

@csrf_exempt
@require_http_methods(["POST"])
def logout_view(request):
    from .auth import logout
    return logout(request)

@require_http_methods(["GET"])
def me_view(request):
    from .auth import me
    return me(request)

urlpatterns = [
    path('login/', login_view, name='login'),
    path('register/', register_view, name='register'),
    path('logout/', logout_view, name='logout'),
    path('me/', me_view, name='me'),
]
