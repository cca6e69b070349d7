"""
UI styling (CSS injected via st.markdown).
"""

from __future__ import annotations

import streamlit as st

THEME_CSS = """
<style>
  :root {
    --bg-primary: #ffffff;
    --bg-secondary: #f8f9fa;
    --text-primary: #1a1a1a;
    --text-secondary: #6b7280;
    --border-color: #e5e7eb;
    --accent: #b91c1c;
    --accent-foreground: #ffffff;
    --ticker-bg: rgba(30, 58, 138, 0.9);
    --ticker-fg: #ffffff;
    --skeleton-start: #1f2937;
    --skeleton-mid: #374151;
  }
</style>
"""

DISPLAY_CSS = """
<style>
  header[data-testid="stHeader"], [data-testid="stToolbar"], footer { display: none; }
  [data-testid="stAppViewContainer"] { background: #000; }
  .block-container { padding: 0 !important; max-width: 100% !important; }

  .nb-stage {
    position: relative;
    width: 100%;
    height: calc(100vh - 3rem);
    background: #000;
    display: flex;
    align-items: center;
    justify-content: center;
    overflow: hidden;
  }
  .nb-stage img.nb-media {
    width: 100%;
    height: 100%;
    object-fit: cover;
  }
  .nb-stage iframe, .nb-stage video {
    width: 100%;
    height: 100%;
    border: 0;
  }
  .nb-text-card {
    width: 100%;
    height: 100%;
    background: #1f2937;
    color: #fff;
    display: flex;
    align-items: center;
    justify-content: center;
    padding: 2rem;
    text-align: center;
    font-size: 2rem;
  }
  .nb-caption {
    position: absolute;
    left: 0;
    right: 0;
    bottom: 3.5rem;
    padding: 0.75rem 2rem;
    background: linear-gradient(transparent, rgba(0, 0, 0, 0.75));
    color: #fff;
    font-size: 1.5rem;
  }
  .nb-empty {
    color: #fff;
    font-size: 1.75rem;
  }
  .nb-skeleton {
    width: 100%;
    height: 100%;
    background: linear-gradient(90deg, var(--skeleton-start) 25%, var(--skeleton-mid) 50%, var(--skeleton-start) 75%);
    background-size: 200% 100%;
    animation: nb-shimmer 1.5s infinite;
  }
  @keyframes nb-shimmer {
    0% { background-position: 200% 0; }
    100% { background-position: -200% 0; }
  }

  .nb-ticker {
    position: fixed;
    left: 0;
    right: 0;
    bottom: 0;
    height: 3rem;
    display: flex;
    align-items: center;
    background: var(--ticker-bg);
    color: var(--ticker-fg);
    overflow: hidden;
    z-index: 1000;
  }
  .nb-ticker-label {
    background: var(--accent);
    color: var(--accent-foreground);
    font-weight: 700;
    padding: 0 1rem;
    height: 100%;
    display: flex;
    align-items: center;
    flex-shrink: 0;
  }
  .nb-ticker-track {
    position: relative;
    flex: 1;
    height: 100%;
    overflow: hidden;
  }
  .nb-ticker-text {
    position: absolute;
    white-space: nowrap;
    height: 100%;
    display: flex;
    align-items: center;
    font-size: 1.1rem;
    font-weight: 600;
    animation: nb-ticker 40s linear infinite;
  }
  .nb-ticker-text span { padding: 0 2rem; }
  @keyframes nb-ticker {
    0% { transform: translateX(0); }
    100% { transform: translateX(-50%); }
  }

  .nb-status {
    position: fixed;
    top: 0.5rem;
    right: 0.75rem;
    color: rgba(255, 255, 255, 0.6);
    font-size: 0.8rem;
    z-index: 1001;
  }
</style>
"""

ADMIN_CSS = """
<style>
  .block-container { padding-top: 1.5rem; padding-bottom: 2rem; }
  .nb-thumb {
    width: 96px;
    height: 54px;
    object-fit: cover;
    border-radius: 4px;
    border: 1px solid var(--border-color);
  }
  .nb-badge {
    display: inline-block;
    padding: 0.1rem 0.5rem;
    border-radius: 999px;
    font-size: 0.75rem;
    background: var(--bg-secondary);
    color: var(--text-secondary);
    border: 1px solid var(--border-color);
  }
  .nb-badge.active { background: #dcfce7; color: #166534; border-color: #86efac; }
</style>
"""


def apply_display_styles() -> None:
    st.markdown(THEME_CSS, unsafe_allow_html=True)
    st.markdown(DISPLAY_CSS, unsafe_allow_html=True)


def apply_admin_styles() -> None:
    st.markdown(THEME_CSS, unsafe_allow_html=True)
    st.markdown(ADMIN_CSS, unsafe_allow_html=True)
