
from django.http import StreamingHttpResponse
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from monitor.exceptions import ChatGatewayError
from monitor.serializers.chat import ChatRequestSerializer
from monitor.services.chat import open_completion_stream, relay


@api_view(['POST'])
@permission_classes([AllowAny])
def chat(request):
    """Proxy a conversation to the LLM gateway and stream the SSE reply back."""
    s = ChatRequestSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    messages = [dict(m) for m in s.validated_data['messages']]
    try:
        upstream = open_completion_stream(messages)
    except ChatGatewayError as e:
        return Response({'ok': False, 'error': str(e)}, status=e.status_code)

    response = StreamingHttpResponse(relay(upstream), content_type='text/event-stream')
    response['Cache-Control'] = 'no-cache'
    response['X-Accel-Buffering'] = 'no'
    return response

chat.cls.throttle_scope = 'chat'
