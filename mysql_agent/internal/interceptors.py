import logging
import time

import grpc

logger = logging.getLogger(__name__)


class LoggingInterceptor(grpc.ServerInterceptor):
    """
    Logs every unary call with its outcome.
    Exceptions escaping a handler are logged and turned into INTERNAL.
    """
    def intercept_service(self, continuation, handler_call_details):
        handler = continuation(handler_call_details)
        if handler is None or not handler.unary_unary:
            return handler

        original_handler = handler.unary_unary
        method = handler_call_details.method

        def new_handler(request, context):
            start = time.monotonic()
            try:
                response = original_handler(request, context)
            except grpc.RpcError:
                raise
            except Exception as e:
                logger.exception(f"{method} raised an unexpected error")
                context.abort(grpc.StatusCode.INTERNAL, str(e))
            code = getattr(context, "code", lambda: None)()
            elapsed = time.monotonic() - start
            if code not in (None, grpc.StatusCode.OK):
                logger.warning(f"{method} finished with {code.name} in {elapsed:.3f}s")
            else:
                logger.info(f"{method} finished in {elapsed:.3f}s")
            return response

        return grpc.unary_unary_rpc_method_handler(
            new_handler,
            request_deserializer=handler.request_deserializer,
            response_serializer=handler.response_serializer,
        )
