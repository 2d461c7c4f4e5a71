"""MLServer adapter: configuration, model file layout and the model runtime service."""