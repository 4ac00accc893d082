"""
app.schemas
~~~~~~~~~~~
Pydantic schemas for the proxy API and the relay protocol.
"""
