#!/usr/bin/env python3
"""
Startup script for the MRR Board Flask app.
Run this to serve the dashboard's integration views locally.
"""

import os
from app import create_app

if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8080))
    print("🚀 Starting MRR Board Flask server...")
    print(f"📡 API will be available at: http://localhost:{port}")
    print(f"🔌 Integrations: http://localhost:{port}/integrations")
    print("\nPress Ctrl+C to stop the server")

    app = create_app()
    app.run(debug=False, host='0.0.0.0', port=port)
