"""ThumbsUp insights: content-intelligence pipeline service."""
