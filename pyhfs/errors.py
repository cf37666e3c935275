"""Errors that end a request, each one tied to the status code it sends."""


class HFSError(Exception):
	status = 500
	message = "Internal server error"

	def __init__(self, message=None):
		if message is not None:
			self.message = message
		super().__init__(self.message)


class BadRequest(HFSError):
	status = 400
	message = "Bad request"


class NotFound(HFSError):
	status = 404
	message = "File not found"


class MethodNotAllowed(HFSError):
	status = 405
	message = "Method not allowed"


class LengthRequired(HFSError):
	status = 411
	message = "Length required"


class RangeNotSatisfiable(HFSError):
	status = 416
	message = "Requested range not satisfiable"


class InternalFailure(HFSError):
	status = 500
	message = "Internal server error"
