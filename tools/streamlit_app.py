"""
Streamlit entrypoint for displays and the admin dashboard.

Usage:
    streamlit run tools/streamlit_app.py              # display
    open http://localhost:8501/?view=admin            # dashboard
"""

from __future__ import annotations

from newsboard.ui.app import main

if __name__ == "__main__":
    main()
