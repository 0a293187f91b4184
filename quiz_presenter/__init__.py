"""Discord bot for authoring, presenting and ranking quizzes."""
