"""HTTP blueprints exposed by the Flask app."""
