"""Hardware-facing adapters (the MQTT broker link)."""
