class RPCError(ValueError):
    """The node answered with a JSON-RPC error that is not an execution failure."""
    def __init__(self, message: str, code: int = None, data=None):
        super().__init__(message)
        self.code = code
        self.data = data


class ExecutionFault(RPCError):
    """
    The call or transaction was rejected: reverted on the node, mined with status 0,
    or aborted inside the in-process engine. No state was changed.
    """
