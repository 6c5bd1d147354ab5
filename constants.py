import os

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 8000))
RELOAD = os.getenv("RELOAD", "false").lower() == "true"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

# When enabled, "signal" messages are relayed to the room like chat
RELAY_SIGNALS = os.getenv("RELAY_SIGNALS", "false").lower() == "true"

# Outbound frames buffered per connection before new ones are dropped
SEND_QUEUE_SIZE = int(os.getenv("SEND_QUEUE_SIZE", 256))

# Policy violation, used to refuse handshakes without a room id
WS_POLICY_VIOLATION = 1008
