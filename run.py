import os

from prodqueue import create_app

app = create_app()

if __name__ == "__main__":
    # Dev server; the reloader child sets WERKZEUG_RUN_MAIN so the scheduler starts once
    app.run(debug=True, port=int(os.environ.get("PORT", "8000")))
