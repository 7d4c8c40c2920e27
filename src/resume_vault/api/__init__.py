# API Module - FastAPI backend
