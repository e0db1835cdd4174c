from rewear import create_app

app = create_app()
