# This module handles context retrieval for a turn

# +---------------------+
# |    MemoryStore      |   (Persistent, per user)
# |---------------------|
# | Notes               |
# | Note embeddings     |
# +---------------------+
#           |
#           v
# +---------------------+
# |  SimilarityRanker   |   (Pure, cosine over query vector)
# |---------------------|
# | score > threshold   |
# | top k, stable ties  |
# +---------------------+
#           |
#           v
# +------------------------------+
# |       Context fragment       |   (Joined with " | ")
# +------------------------------+
#         |
#         v
#   [prompt -> LLM -> action parser]
