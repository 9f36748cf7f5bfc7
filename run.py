"""Local development server.

Usage:
    python run.py

Reads .env, then serves the API on port 5001 with the reloader on.
"""

from dotenv import load_dotenv

load_dotenv()

from storefront import create_app  # noqa: E402

app = create_app()

if __name__ == "__main__":
    app.run(debug=True, host="127.0.0.1", port=5001)
