from dramatiq.broker import MessageProxy
from dramatiq.brokers.stub import StubBroker

__all__ = ['EagerBroker', 'StubBroker']


class EagerBroker(StubBroker):
    """
    Runs each actor in the caller's thread the moment it is sent. Message
    middleware still wraps the call, so the actor sees the same app context
    and session handling it would get from a worker
    """

    def enqueue(self, message, *, delay=None):
        proxy = MessageProxy(message)
        self.emit_before('process_message', proxy)

        result, exception = None, None
        try:
            result = self.get_actor(message.actor_name)(*message.args, **message.kwargs)
        except Exception as exc:
            exception = exc
            proxy.stuff_exception(exc)
            proxy.fail()

        self.emit_after('process_message', proxy, result=result, exception=exception)
        return message
