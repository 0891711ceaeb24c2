"""
Image Annotator - Streamlit entry point

Run with: streamlit run streamlit_app.py
"""
from app.main import main

main()
