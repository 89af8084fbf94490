"""Dashboard package.

The dashboard shows live crowd figures, windowed analytics, the heat
map and the alert queue. It is implemented with Streamlit in `app.py`;
run it with `streamlit run dashboard/app.py` from the repository root.
"""
