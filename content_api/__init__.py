"""Social Content API: posts, tags, comments, likes and follows as live views."""
