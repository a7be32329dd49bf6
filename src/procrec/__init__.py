"""Record CPU and memory usage of a running process."""
