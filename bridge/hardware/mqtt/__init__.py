from bridge.hardware.mqtt.broker_link import BrokerLink, HealthStatus

__all__ = ["BrokerLink", "HealthStatus"]
