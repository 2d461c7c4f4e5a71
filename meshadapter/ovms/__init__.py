"""OpenVINO Model Server support: configuration, model file layout and config documents."""