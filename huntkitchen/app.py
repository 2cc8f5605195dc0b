# module huntkitchen.app
from huntkitchen.app_setup.factory import create_app

# App globale
app = create_app()
