from __future__ import annotations

from .api import create_app
from .config import load_settings


def main():
    settings = load_settings()
    app = create_app(settings)
    app.run(host="0.0.0.0", port=settings.port, debug=False)


if __name__ == "__main__":
    main()
