"""Local browser UI: the shared service layer and its FastAPI server."""
