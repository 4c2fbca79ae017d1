"""
Entry point for Flask.

Usage (from project root):

    flask --app run.py --debug run

Storage backend is chosen with PRICING_BACKEND=sql|local.
"""

from pricedesk import create_app

# WSGI application object for Flask to run.
app = create_app()

if __name__ == "__main__":
    # For direct `python run.py` usage (dev only) - use `flask run` instead.
    app.run(debug=True)
