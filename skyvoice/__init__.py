"""SkyVoice: the dialogue backend behind an airline app's voice assistant.

Architecture Overview
=====================

Two request paths share one process:

1. **Agent path** (``/api/voice/prompt``): the prompt is forwarded to an
   AWS Bedrock agent on the user's session.  ``ConnectionManager`` owns the
   agent client, probes it every two minutes and reconnects with capped
   exponential backoff; ``AgentInvoker`` retries transient failures and
   always returns a structured envelope.

2. **Dialogue path** (``/api/voice/process``): a LangGraph state machine
   first checks whether the utterance answers a pending cancellation,
   change or check-in flow; otherwise it classifies the text by nearest
   labeled example (Titan embeddings + Qdrant or an in-process index) and
   renders a response template.

Package Structure
-----------------
- ``skyvoice/config.py`` - environment / SSM configuration
- ``skyvoice/runtime.py`` - builds and owns the service objects
- ``skyvoice/dialogue.py`` - LangGraph dialogue state machine
- ``skyvoice/responses.py`` - response template table
- ``skyvoice/server.py`` - FastAPI application
- ``skyvoice/main.py`` - CLI loop
- ``skyvoice/services/`` - agent, embeddings, intent index, sessions, booking API, metrics
- ``skyvoice/api/`` - FastAPI routes and Pydantic schemas
"""
