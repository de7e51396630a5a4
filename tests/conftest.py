import matplotlib

# Headless backend for plot exports
matplotlib.use("Agg")
