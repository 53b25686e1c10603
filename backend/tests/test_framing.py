"""Tests for newline-delimited JSON-RPC framing."""

from trainer.rpc.framing import (
	JsonRpcErrorResponse,
	JsonRpcRequest,
	JsonRpcResponse,
	LineFramer,
	decode_message,
)


def test_message_split_across_chunks_is_buffered() -> None:
	framer = LineFramer()
	assert framer.feed('{"jsonrpc":"2.0","id":1,"res') == []
	assert framer.pending == '{"jsonrpc":"2.0","id":1,"res'
	messages = framer.feed('ult":{}}\n')
	assert messages == [JsonRpcResponse(id=1, result={})]
	assert framer.pending == ""


def test_log_lines_are_skipped_without_losing_messages() -> None:
	framer = LineFramer()
	stream = 'dotenv loaded\n{"jsonrpc":"2.0","id":2,"result":"ok"}\n{"foo":1}\n'
	assert framer.feed(stream) == [JsonRpcResponse(id=2, result="ok")]


def test_multiple_messages_in_one_chunk_keep_order() -> None:
	framer = LineFramer()
	chunk = b'{"jsonrpc":"2.0","id":3,"result":1}\n{"jsonrpc":"2.0","id":4,"result":2}\n{"jsonrpc"'
	messages = framer.feed(chunk)
	assert [m.id for m in messages] == [3, 4]
	assert framer.pending == '{"jsonrpc"'


def test_serialize_then_feed_yields_same_message() -> None:
	request = JsonRpcRequest(method="tools/call", params={"name": "ping", "arguments": {"a": [1, 2]}}, id=7)
	line = LineFramer.serialize(request)
	assert line.endswith("\n")
	assert line.count("\n") == 1
	assert LineFramer().feed(line) == [request]


def test_error_envelope_decodes_to_error_response() -> None:
	message = decode_message({"jsonrpc": "2.0", "id": 5, "error": {"code": -32601, "message": "Unknown method: foo"}})
	assert message == JsonRpcErrorResponse(id=5, code=-32601, message="Unknown method: foo")


def test_notification_has_no_id() -> None:
	message = decode_message({"jsonrpc": "2.0", "method": "notifications/initialized"})
	assert isinstance(message, JsonRpcRequest)
	assert message.id is None
	assert "id" not in message.to_dict()


def test_reset_drops_partial_line() -> None:
	framer = LineFramer()
	framer.feed('{"partial"')
	framer.reset()
	assert framer.feed('{"jsonrpc":"2.0","id":1,"result":null}\n') == [JsonRpcResponse(id=1, result=None)]


def test_multibyte_character_split_across_chunks_survives() -> None:
	framer = LineFramer()
	data = '{"jsonrpc":"2.0","id":4,"method":"ping","params":{"word":"café"}}\n'.encode("utf-8")
	split = data.index("é".encode("utf-8")) + 1
	assert framer.feed(data[:split]) == []
	(message,) = framer.feed(data[split:])
	assert message.params == {"word": "café"}
