"""Business services: stateless functions over a Session and a Principal."""
