"""DocuMind API: document Q&A with subscription billing."""
