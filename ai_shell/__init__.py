"""
ai-shell core: provider abstraction and local-model stream negotiation.

Turns a completion request into an open byte stream from either a hosted
OpenAI-style API or a local model server (Ollama, LM Studio, or any
OpenAI-compatible server).
"""
