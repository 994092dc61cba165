"""Output collaborators: display power actuators and the MQTT client."""
