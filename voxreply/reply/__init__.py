"""Reply accumulation, lifecycle resolution and serialization."""

from voxreply.reply.accumulator import Reply, ReplyState
from voxreply.reply.fragment import ReplyFragment
from voxreply.reply.serializer import serialize

__all__ = ["Reply", "ReplyFragment", "ReplyState", "serialize"]
