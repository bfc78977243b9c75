# Blueprints of the portal; registered in app.create_app.
