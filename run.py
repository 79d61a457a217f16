"""Local development entry point for the webhook receiver.

Usage:
    python run.py

Forward test-mode events with the Stripe CLI:
    stripe listen --forward-to localhost:5001/api/stripe/webhook
"""

from dotenv import load_dotenv

load_dotenv()  # Load .env before the config classes read the environment

from reconciler import create_app

app = create_app()

if __name__ == "__main__":
    app.run(debug=True, host="0.0.0.0", port=5001)
