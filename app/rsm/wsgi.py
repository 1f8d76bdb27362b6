from app.rsm import create_app

app = create_app()
