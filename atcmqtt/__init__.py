"""Bridge BLE thermometer advertisements to MQTT."""
