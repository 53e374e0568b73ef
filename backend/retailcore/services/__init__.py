# Overview: Service layer; business logic and database units of work behind the routes and CLI.
