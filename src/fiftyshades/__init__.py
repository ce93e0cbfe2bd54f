# 50shades: one command line for Graylog and Elasticsearch logs

__version__ = "0.4.0"
