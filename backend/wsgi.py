from cspace import create_app

app = create_app()
