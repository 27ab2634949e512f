# Everything the provider sees for one operation is assembled here

# +---------------------+      +----------------------+
# |      Memory         |      |     Retriever        |   (optional, best effort)
# |---------------------|      |----------------------|
# | Prior messages      |      | Relevant text        |
# | (<= context_limit)  |      | Sources -> context   |
# +---------------------+      +----------------------+
#            \                        /
#             \                      /
#              v                    v
# +----------------------------------------+
# |           Assembled messages           |
# |----------------------------------------|
# | system: instructions + retrieved text  |
# | prior messages (chronological)         |
# | caller input (order untouched)         |
# +----------------------------------------+
#                    |
#                    v
#   [provider / on_step_finish / history]
