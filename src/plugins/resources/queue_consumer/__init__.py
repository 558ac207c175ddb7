from plugins.resources.queue_consumer.resource import QueueConsumerPlugin

__all__ = ["QueueConsumerPlugin"]
